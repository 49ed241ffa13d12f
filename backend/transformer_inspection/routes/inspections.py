"""
Inspection and anomaly endpoints.

HTTP adapter over InspectionService. Registry outcomes map to status
codes here and nowhere else:
- NOT_FOUND -> 404
- VALIDATION_FAILURE -> 422
"""

import base64
import binascii
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from ..anomalies.registry import RegistryOutcome, RegistryResult
from ..identifiers.errors import ExhaustedRetriesError
from ..inspections.errors import InspectionNotFoundError, InvalidInspectionRecordError
from ..inspections.service import InspectionService
from ..persistence.errors import SaveError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/inspections", tags=["inspections"])


# ============================================================================
# Request Models
# ============================================================================

class CreateInspectionRequest(BaseModel):
    """Request body for inspection creation. `image` is base64-encoded."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    transformer_number: str = Field(min_length=1, alias="transformerNumber")
    inspection_number: Optional[str] = Field(default=None, alias="inspectionNumber")
    inspection_date: Optional[str] = Field(default=None, alias="inspectionDate")
    maintainance_date: Optional[str] = Field(default=None, alias="maintainanceDate")
    status: Optional[str] = None
    inspector: Optional[str] = None
    image: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    threshold: Optional[float] = None


class ReplaceImageRequest(BaseModel):
    """Request body for replacing an inspection's image."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    image: str = Field(min_length=1)
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    threshold: Optional[float] = None


# ============================================================================
# Helpers
# ============================================================================

def _service(request: Request) -> InspectionService:
    return request.app.state.inspection_service


def _decode_image(value: Optional[str]) -> Optional[bytes]:
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"image is not valid base64: {e}")


def _check(result: RegistryResult) -> RegistryResult:
    if result.outcome == RegistryOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail=result.message)
    if result.outcome == RegistryOutcome.VALIDATION_FAILURE:
        raise HTTPException(status_code=422, detail=result.message)
    return result


def _not_found(e: InspectionNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


# ============================================================================
# Inspections
# ============================================================================

@router.get("")
def list_inspections(request: Request):
    """List all inspections, newest first."""
    try:
        return [inspection.to_dict() for inspection in _service(request).list_inspections()]
    except InvalidInspectionRecordError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", status_code=201)
def create_inspection(body: CreateInspectionRequest, request: Request):
    """Create an inspection. Detection runs when an image is attached."""
    image = _decode_image(body.image)
    try:
        inspection = _service(request).create_inspection(
            transformer_number=body.transformer_number,
            inspection_number=body.inspection_number,
            inspection_date=body.inspection_date,
            maintainance_date=body.maintainance_date,
            status=body.status,
            inspector=body.inspector,
            image=image,
            image_url=body.image_url,
            threshold=body.threshold,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except SaveError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ExhaustedRetriesError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))
    return inspection.to_dict()


@router.get("/{iid}")
def get_inspection(iid: int, request: Request):
    """Get one inspection with its anomalies and log."""
    try:
        return _service(request).get_inspection(iid).to_dict()
    except InspectionNotFoundError as e:
        raise _not_found(e)
    except InvalidInspectionRecordError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{iid}")
def delete_inspection(iid: int, request: Request):
    """Delete an inspection."""
    try:
        _service(request).delete_inspection(iid)
    except InspectionNotFoundError as e:
        raise _not_found(e)
    return {"deleted": iid}


@router.post("/{iid}/image")
def replace_image(iid: int, body: ReplaceImageRequest, request: Request):
    """
    Replace the inspection image and merge new detections.

    Detector failures are reported in the response, not as an error.
    """
    image = _decode_image(body.image)
    try:
        inspection, result = _service(request).replace_image(
            iid, image, threshold=body.threshold, image_url=body.image_url
        )
    except InspectionNotFoundError as e:
        raise _not_found(e)

    return {
        "inspection": inspection.to_dict(),
        "detections": len(result.detections) if result else 0,
        "detectorFailed": result.detector_failed if result else False,
    }


# ============================================================================
# Anomalies
# ============================================================================

@router.get("/{iid}/anomalies")
def get_anomalies(iid: int, request: Request):
    """Current anomalies for an inspection."""
    try:
        anomalies = _service(request).get_anomalies(iid)
    except InspectionNotFoundError as e:
        raise _not_found(e)
    return [anomaly.to_dict() for anomaly in anomalies]


@router.get("/{iid}/anomalies/log")
def get_anomaly_log(iid: int, request: Request):
    """Full anomaly audit log for an inspection."""
    try:
        entries = _service(request).get_anomaly_log(iid)
    except InspectionNotFoundError as e:
        raise _not_found(e)
    return [entry.to_dict() for entry in entries]


@router.post("/{iid}/anomalies", status_code=201)
def add_anomaly(iid: int, request: Request, body: Dict[str, Any] = Body(...)):
    """Add a reviewer anomaly. madeBy defaults to User."""
    try:
        result = _check(_service(request).add_anomaly(iid, body))
    except InspectionNotFoundError as e:
        raise _not_found(e)
    return result.anomaly.to_dict()


@router.put("/{iid}/anomalies/{anomaly_id}")
def update_anomaly(iid: int, anomaly_id: str, request: Request, body: Dict[str, Any] = Body(...)):
    """Edit an anomaly. id and madeBy in the body are ignored."""
    try:
        result = _check(_service(request).update_anomaly(iid, anomaly_id, body))
    except InspectionNotFoundError as e:
        raise _not_found(e)
    return result.anomaly.to_dict()


@router.delete("/{iid}/anomalies/{anomaly_id}")
def delete_anomaly(iid: int, anomaly_id: str, request: Request):
    """Delete an anomaly. Its last state stays in the audit log."""
    try:
        result = _check(_service(request).delete_anomaly(iid, anomaly_id))
    except InspectionNotFoundError as e:
        raise _not_found(e)
    return {"deleted": anomaly_id, "entry": result.entry.to_dict()}
