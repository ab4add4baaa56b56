"""Infrastructure layer exports."""

from .cloud_start import CloudStartSubmitter, GcsUploader, StartTranscriptionClient
from .clova_speech import ClovaSpeechProvider
from .gemini_transcriber import GeminiFileProvider
from .google_speech import GoogleSpeechProvider
from .minio_storage import MinioStorageClient

__all__ = [
    "ClovaSpeechProvider",
    "CloudStartSubmitter",
    "GcsUploader",
    "GeminiFileProvider",
    "GoogleSpeechProvider",
    "MinioStorageClient",
    "StartTranscriptionClient",
]
