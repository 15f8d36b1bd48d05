"""Run orchestration: worker pool, asset stage, persistence and progress.

Modules:
    orchestrator: GenerationOrchestrator, the entry point for a run
    assets: Rendering of planned documents, images, invites and voicemails
    document_chains: Cross-thread document version chains
    eml_sink: Message-file sink writing .eml files
    interfaces: Protocols for the message-file sink and asset renderers
    progress: Lock-guarded progress counters
    models: Renderer specs, asset-stage responses and the run result
"""

from src.threadgen.orchestration.assets import (
    AssetGenerationError,
    AttachmentAssetGenerator,
)
from src.threadgen.orchestration.document_chains import (
    ChainReservation,
    DocumentChain,
    DocumentChainRegistry,
    get_version_label,
)
from src.threadgen.orchestration.eml_sink import EmlFileSink, build_mime_message
from src.threadgen.orchestration.interfaces import (
    CalendarInviteRenderer,
    DocumentRenderer,
    ImageRenderer,
    MessageFileSink,
    SpeechRenderer,
)
from src.threadgen.orchestration.models import (
    CalendarInviteSpec,
    DocumentSpec,
    GenerationResult,
    ImageSpec,
    MeetingDetectionResponse,
    VoicemailScriptResponse,
    VoicemailSpec,
)
from src.threadgen.orchestration.orchestrator import (
    GenerationOrchestrator,
    ThreadSaveError,
)
from src.threadgen.orchestration.progress import ProgressTracker

__all__ = [
    # Orchestrator
    "GenerationOrchestrator",
    "GenerationResult",
    "ThreadSaveError",
    "ProgressTracker",
    # Assets
    "AssetGenerationError",
    "AttachmentAssetGenerator",
    "ChainReservation",
    "DocumentChain",
    "DocumentChainRegistry",
    "get_version_label",
    # Interfaces
    "EmlFileSink",
    "build_mime_message",
    "CalendarInviteRenderer",
    "DocumentRenderer",
    "ImageRenderer",
    "MessageFileSink",
    "SpeechRenderer",
    # Models
    "CalendarInviteSpec",
    "DocumentSpec",
    "ImageSpec",
    "MeetingDetectionResponse",
    "VoicemailScriptResponse",
    "VoicemailSpec",
]
