"""Runtime support for generated protosynth initializers."""

from .context import ContextError as ContextError
from .context import SerializationContext as SerializationContext
from .context import SerializationContextInitializer as SerializationContextInitializer
from .context import load_initializers as load_initializers
from .context import read_resource_text as read_resource_text
from .marshaller import BaseMarshaller as BaseMarshaller
from .marshaller import EnumMarshaller as EnumMarshaller
from .marshaller import MarshallingError as MarshallingError
from .marshaller import MessageMarshaller as MessageMarshaller
from .marshaller import ProtoStreamReader as ProtoStreamReader
from .marshaller import ProtoStreamWriter as ProtoStreamWriter
