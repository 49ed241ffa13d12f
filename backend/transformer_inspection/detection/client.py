"""
HTTP client for the external anomaly detector.

Request:
    POST {"image": <base64>, "threshold": float, "iou_threshold": float}

Response:
    {"detections": [{"box": [x1, y1, x2, y2], "class": str, "confidence": float}],
     "imageUrl": str (optional)}

Every failure (transport, timeout, status, body) surfaces as
DetectorGatewayError so the caller has a single thing to absorb.
"""

import base64
import json
import logging
from typing import List, Optional

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import DetectorGatewayError

logger = logging.getLogger(__name__)


class RawDetection(BaseModel):
    """One detection as reported by the detector (corner-pair box)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    box: List[float]
    class_name: str = Field(
        default="",
        validation_alias=AliasChoices("class", "className", "class_name"),
    )
    confidence: float = 0.0

    @field_validator("class_name", mode="before")
    @classmethod
    def _null_class_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("confidence", mode="before")
    @classmethod
    def _null_confidence_is_zero(cls, value):
        return 0.0 if value is None else value


class DetectorResponse(BaseModel):
    """Parsed detector response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    detections: List[RawDetection] = Field(default_factory=list)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    @field_validator("detections", mode="before")
    @classmethod
    def _null_means_none_found(cls, value):
        return [] if value is None else value


class DetectorClient:
    """
    Thin wrapper over an httpx.Client.

    The composition root owns the underlying client and closes it; tests
    inject one built on httpx.MockTransport.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize detector client.

        Args:
            url: Detector endpoint
            timeout: Per-request timeout in seconds
            client: Optional pre-built httpx.Client
        """
        self.url = url
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def detect(self, image: bytes, threshold: float, iou_threshold: float) -> DetectorResponse:
        """
        Send an image to the detector.

        Args:
            image: Raw image bytes
            threshold: Detection confidence threshold in [0, 1]
            iou_threshold: Overlap suppression threshold in [0, 1]

        Returns:
            DetectorResponse with corner-pair boxes

        Raises:
            DetectorGatewayError: On any transport or parse failure
        """
        payload = {
            "image": base64.b64encode(image).decode("ascii"),
            "threshold": threshold,
            "iou_threshold": iou_threshold,
        }

        try:
            response = self._client.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise DetectorGatewayError(f"timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise DetectorGatewayError(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DetectorGatewayError(f"{type(e).__name__}: {e}") from e

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DetectorGatewayError(f"response is not JSON: {e}") from e

        if not isinstance(body, dict):
            raise DetectorGatewayError(f"expected JSON object, got {type(body).__name__}")

        try:
            parsed = DetectorResponse.model_validate(body)
        except ValidationError as e:
            raise DetectorGatewayError(f"unexpected response shape: {e.error_count()} error(s)") from e

        logger.debug(f"Detector returned {len(parsed.detections)} detection(s)")
        return parsed

    def close(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            self._client.close()
