"""
Lockbox API routers.

Thin HTTP layer over LockboxController; guard violations map to 409 and
unknown ids to 404 through the handlers registered in ``app.py``.
"""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Request, Response, status

from boxbuddy.api.schemas import (
    ActorRequest,
    AuditEntryOut,
    CodeCreateRequest,
    CodeOut,
    DeviceCreateRequest,
    DeviceOut,
    RedeemResponse,
    SimulationPatch,
    SystemEventRequest,
)
from boxbuddy.lockbox.controller import LockboxController


def get_controller(request: Request) -> LockboxController:
    """Controller dependency stored on the application state."""
    return request.app.state.controller


devices_router = APIRouter(tags=["devices"])
codes_router = APIRouter(tags=["codes"])
audit_router = APIRouter(tags=["audit"])


@devices_router.get("/", response_model=List[DeviceOut])
def list_devices(controller: LockboxController = Depends(get_controller)):
    return [DeviceOut.from_device(device) for device in controller.devices()]


@devices_router.post("/", response_model=DeviceOut, status_code=status.HTTP_201_CREATED)
def add_device(payload: DeviceCreateRequest, controller: LockboxController = Depends(get_controller)):
    return DeviceOut.from_device(controller.add_device(payload.variant, payload.name))


@devices_router.get("/selected", response_model=Optional[DeviceOut])
def get_selected_device(controller: LockboxController = Depends(get_controller)):
    device = controller.selected_device()
    return DeviceOut.from_device(device) if device else None


@devices_router.get("/{device_id}", response_model=DeviceOut)
def get_device(device_id: str, controller: LockboxController = Depends(get_controller)):
    return DeviceOut.from_device(controller.get_device(device_id))


@devices_router.delete("/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_device(device_id: str, controller: LockboxController = Depends(get_controller)):
    controller.remove_device(device_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@devices_router.post("/{device_id}/select", response_model=DeviceOut)
def select_device(device_id: str, controller: LockboxController = Depends(get_controller)):
    return DeviceOut.from_device(controller.select_device(device_id))


@devices_router.post("/{device_id}/lock/toggle", response_model=DeviceOut)
def toggle_lock(
    device_id: str,
    payload: Optional[ActorRequest] = None,
    controller: LockboxController = Depends(get_controller),
):
    actor = payload.actor if payload else None
    return DeviceOut.from_device(controller.toggle_lock(device_id, actor))


@devices_router.post("/{device_id}/cooling/toggle", response_model=DeviceOut)
def toggle_cooling(
    device_id: str,
    payload: Optional[ActorRequest] = None,
    controller: LockboxController = Depends(get_controller),
):
    actor = payload.actor if payload else None
    return DeviceOut.from_device(controller.toggle_cooling(device_id, actor))


@devices_router.patch("/{device_id}/simulation", response_model=DeviceOut)
def apply_simulation(
    device_id: str,
    payload: SimulationPatch,
    controller: LockboxController = Depends(get_controller),
):
    """
    Inject sensor state for testing.

    Only fields present in the payload are applied, so ``{"temp_c": null}``
    switches cooling off while an omitted ``temp_c`` leaves it unchanged.
    """
    fields = payload.model_fields_set
    device = controller.get_device(device_id)
    if "online" in fields and payload.online is not None:
        device = controller.set_online(device_id, payload.online)
    if "door_open" in fields and payload.door_open is not None:
        device = controller.set_door_open(device_id, payload.door_open)
    if "battery_pct" in fields and payload.battery_pct is not None:
        device = controller.set_battery(device_id, payload.battery_pct)
    if "temp_c" in fields:
        device = controller.set_temperature(device_id, payload.temp_c)
    return DeviceOut.from_device(device)


@devices_router.get("/{device_id}/codes", response_model=List[CodeOut])
def list_codes(
    device_id: str,
    state: Literal["active", "completed"] = "active",
    controller: LockboxController = Depends(get_controller),
):
    if state == "active":
        codes = controller.list_active_codes(device_id)
    else:
        codes = controller.list_completed_codes(device_id)
    return [CodeOut.from_code(code) for code in codes]


@devices_router.post("/{device_id}/codes", response_model=CodeOut, status_code=status.HTTP_201_CREATED)
def issue_code(
    device_id: str,
    payload: CodeCreateRequest,
    controller: LockboxController = Depends(get_controller),
):
    code = controller.issue_code(device_id, payload.hours, payload.note, payload.issuer)
    return CodeOut.from_code(code)


@codes_router.post("/{code_id}/redeem", response_model=RedeemResponse)
def redeem_code(code_id: str, controller: LockboxController = Depends(get_controller)):
    code = controller.redeem_code(code_id)
    if code is None:
        return RedeemResponse(redeemed=False)
    return RedeemResponse(redeemed=True, code=CodeOut.from_code(code))


@codes_router.get("/{code_id}/share")
def share_code(code_id: str, controller: LockboxController = Depends(get_controller)):
    return {"text": controller.share_text(code_id)}


@audit_router.get("/", response_model=List[AuditEntryOut])
def get_audit_log(controller: LockboxController = Depends(get_controller)):
    """Audit entries, newest first."""
    return [AuditEntryOut.from_entry(entry) for entry in controller.get_audit_log()]


@audit_router.post("/system", response_model=AuditEntryOut, status_code=status.HTTP_201_CREATED)
def record_system_event(payload: SystemEventRequest, controller: LockboxController = Depends(get_controller)):
    return AuditEntryOut.from_entry(controller.record_system_event(payload.text))
