from typing import TYPE_CHECKING

from openai import AsyncOpenAI

if TYPE_CHECKING:
    from voicerecap.context import Context

from voicerecap.config import BotConfig
from voicerecap.services.logger import AsyncLoggingService
from voicerecap.services.manager import ServicesManager
from voicerecap.services.recording_file_manager.manager import RecordingFileManagerService
from voicerecap.services.summarization.manager import SummarizationService
from voicerecap.services.transcription.manager import TranscriptionService
from voicerecap.services.voice_session_manager.manager import VoiceSessionManagerService

# -------------------------------------------------------------- #
# Constructor for the Services Manager
# -------------------------------------------------------------- #


def construct_services_manager(
    context: "Context",
    config: BotConfig,
    log_file: str | None = None,
    use_timestamp_logs: bool = True,
    openai_client: AsyncOpenAI | None = None,
) -> ServicesManager:
    """Construct and return a services manager wired from the bot configuration.

    Args:
        context: Context instance shared by all services
        config: Bot configuration (secrets, storage and model settings)
        log_file: Specific log file name (optional, overrides use_timestamp_logs)
        use_timestamp_logs: If True and log_file is None, creates timestamped log files
        openai_client: Client to use instead of building one from config.openai_api_key
    """

    # create logger
    logging_service = AsyncLoggingService(
        context=context,
        log_dir=config.log_dir,
        log_file=log_file,
        use_timestamp=use_timestamp_logs,
    )

    # -------------------------------------------------------------- #
    # Files
    # -------------------------------------------------------------- #

    recording_file_service_manager = RecordingFileManagerService(
        context=context, recording_storage_path=config.recording_storage_path
    )

    # -------------------------------------------------------------- #
    # Language Model Collaborators
    # -------------------------------------------------------------- #

    # TranscriptionService owns the retry budget, so the SDK must not retry on its own
    if openai_client is None:
        openai_client = AsyncOpenAI(api_key=config.openai_api_key, max_retries=0)

    transcription_service = TranscriptionService(
        context=context, client=openai_client, model=config.transcription_model
    )
    summarization_service = SummarizationService(
        context=context, client=openai_client, model=config.summary_model
    )

    # -------------------------------------------------------------- #
    # Voice Sessions
    # -------------------------------------------------------------- #

    voice_session_manager = VoiceSessionManagerService(context=context)

    return ServicesManager(
        context=context,
        logging_service=logging_service,
        recording_file_service_manager=recording_file_service_manager,
        transcription_service=transcription_service,
        summarization_service=summarization_service,
        voice_session_manager=voice_session_manager,
    )
