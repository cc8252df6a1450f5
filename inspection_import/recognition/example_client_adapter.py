"""Example recognition client adapter.

Use this module as a reference when implementing new backend adapters.
Implement BaseRecognitionClient and register the engine in RecognitionClientFactory.
"""

import json
from typing import ClassVar

from inspection_import.pipeline.models import UploadedFile
from inspection_import.recognition.base import BaseRecognitionClient
from inspection_import.recognition.models import RecognitionResponse


class ExampleClientAdapter(BaseRecognitionClient):
    """Example adapter that returns a fixed, valid, empty recognition result.

    No network calls. Useful for local development and tests.
    """

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "results": [],
        "analytics": {
            "issueTypes": {},
            "severityDistribution": {},
            "confidence": 0.8,
        },
    }

    async def analyze(
        self,
        upload: UploadedFile,
        inspection_type: str | None = None,
    ) -> RecognitionResponse:
        _ = upload, inspection_type
        return RecognitionResponse(status_code=200, body=json.dumps(self.DEFAULT_RESPONSE))
