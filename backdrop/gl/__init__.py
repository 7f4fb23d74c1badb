from .Device import (Device, Capabilities, ShaderKind, DeviceError, AllocationError,
                     ShaderCompileError, ProgramLinkError, FeedbackLoopError)
from .Texture import Filter, TextureFormat
from .Fbo import Fbo, SwapFbo
from .Material import Material, Keyword, variant_key, add_keywords
from .Shader import Shader
from .NumpyDevice import NumpyDevice
