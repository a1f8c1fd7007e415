from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user
from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Length

from ..engine.errors import ValidationError
from ..services import pets as pet_service

pet_bp = Blueprint("pet", __name__)


def _strip(value):
    return str(value).strip() if value is not None else value


class NameForm(FlaskForm):
    name = StringField(
        "Name", validators=[DataRequired(), Length(min=1, max=100)], filters=[_strip]
    )


def _validated_name() -> str:
    form = NameForm()
    if not form.validate_on_submit():
        raise ValidationError("Invalid input", errors=form.errors)
    return form.name.data


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _pet_response(pet, message=None, status=200):
    body = {"pet": pet.to_dict()}
    if message:
        body["message"] = message
    return jsonify(body), status


@pet_bp.get("")
@login_required
def get_pet():
    pet = pet_service.get_current_state(current_user.id)
    return _pet_response(pet)


@pet_bp.post("/spawn")
@login_required
def spawn_pet():
    pet = pet_service.spawn(current_user.id, _validated_name())
    return _pet_response(pet, "Pet spawned successfully", 201)


@pet_bp.post("/action/<action_type>")
@login_required
def perform_action(action_type):
    pet = pet_service.apply_action(current_user.id, action_type)
    return _pet_response(pet, f"Action {action_type} performed successfully")


@pet_bp.post("/sleep")
@login_required
def toggle_sleep():
    pet = pet_service.toggle_sleep(current_user.id)
    return _pet_response(pet, f"Pet is now {pet.sleep_state.replace('_', ' ')}")


@pet_bp.post("/light")
@login_required
def toggle_light():
    pet = pet_service.toggle_light(current_user.id, _json_body().get("lightOn"))
    return _pet_response(pet, f"Light is now {'on' if pet.light_on else 'off'}")


@pet_bp.get("/sleep-status")
@login_required
def sleep_status():
    return jsonify({"sleep": pet_service.get_sleep_status(current_user.id)})


@pet_bp.post("/revive")
@login_required
def revive_pet():
    pet = pet_service.revive(current_user.id, _validated_name())
    return _pet_response(pet, "Pet revived successfully")


@pet_bp.post("/dev-reset")
@login_required
def dev_reset():
    pet = pet_service.dev_reset(current_user.id)
    return _pet_response(pet, "Pet reset to egg stage")


@pet_bp.post("/dev-stage")
@login_required
def dev_stage():
    stage = _json_body().get("stage")
    if stage is None:
        raise ValidationError("Invalid input", errors={"stage": ["This field is required."]})
    pet = pet_service.dev_override(current_user.id, stage=stage)
    current_app.logger.info("dev stage change user_id=%s stage=%s", current_user.id, stage)
    return _pet_response(pet, f"Pet stage changed to {pet.stage}")


@pet_bp.post("/dev-stats")
@login_required
def dev_stats():
    body = _json_body()
    stats = body.get("stats", body)
    if not isinstance(stats, dict):
        raise ValidationError("Invalid input", errors={"stats": ["Must be an object."]})
    pet = pet_service.dev_override(current_user.id, stats=stats)
    return _pet_response(pet, "Pet stats updated")
