from .confidence import accept, mean_error
from .decoder import ContinuousDecoder, Decoder, SingleShotDecoder, build_decoder
from .engines import EngineUnavailable, PyzbarEngine, ZXingEngine, build_available_engine, build_engine
from .errors import (
    DeviceUnavailable,
    EmptyInput,
    PermissionDenied,
    ScannerError,
    SessionBusyError,
    SessionClosedError,
    TargetMissing,
)
from .feedback import FeedbackEmitter, message_for
from .frame_source import FrameSource, OpenCVFrameSource, open_with_fallback
from .manual import ManualEntry, normalize_manual_code
from .session import ScanSession
from .types import (
    CameraCapabilities,
    CameraConstraints,
    DecodeCandidate,
    ErrorKind,
    FacingMode,
    RenderTarget,
    ScanConfig,
    ScanState,
    Symbology,
    ZoomRange,
)

__all__ = [
    "accept",
    "mean_error",
    "CameraCapabilities",
    "CameraConstraints",
    "ContinuousDecoder",
    "DecodeCandidate",
    "Decoder",
    "DeviceUnavailable",
    "EmptyInput",
    "EngineUnavailable",
    "ErrorKind",
    "FacingMode",
    "FeedbackEmitter",
    "FrameSource",
    "ManualEntry",
    "OpenCVFrameSource",
    "PermissionDenied",
    "PyzbarEngine",
    "RenderTarget",
    "ScanConfig",
    "ScanSession",
    "ScanState",
    "ScannerError",
    "SessionBusyError",
    "SessionClosedError",
    "SingleShotDecoder",
    "Symbology",
    "TargetMissing",
    "ZXingEngine",
    "ZoomRange",
    "build_available_engine",
    "build_decoder",
    "build_engine",
    "message_for",
    "normalize_manual_code",
    "open_with_fallback",
]
