from flask import Blueprint, current_app, jsonify, request
from flask_login import login_user, logout_user, current_user
from flask_wtf import FlaskForm
from flask_wtf.csrf import generate_csrf
from wtforms import StringField, PasswordField
from wtforms.fields import EmailField
from wtforms.validators import DataRequired, Email, Length, Optional

from ..engine.errors import ValidationError
from ..extensions import db
from ..models.user import User

auth_bp = Blueprint("auth", __name__)


class SignupForm(FlaskForm):
    email = EmailField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=6)])
    name = StringField("Name", validators=[Optional(), Length(max=120)])


class LoginForm(FlaskForm):
    email = EmailField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Password", validators=[DataRequired()])


def _validate(form: FlaskForm) -> FlaskForm:
    if not form.validate_on_submit():
        current_app.logger.info(
            "auth validation failed path=%s errors=%s", request.path, form.errors
        )
        raise ValidationError("Invalid input", errors=form.errors)
    return form


@auth_bp.get("/csrf")
def csrf_token():
    return jsonify({"csrfToken": generate_csrf()})


@auth_bp.post("/signup")
def signup():
    form = _validate(SignupForm())
    email = form.email.data.strip().lower()
    if User.query.filter_by(email=email).first():
        current_app.logger.info("signup rejected, user exists email=%s", email)
        return jsonify({"error": "User already exists"}), 409

    user = User(email=email, name=(form.name.data or "").strip() or None)
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.commit()

    login_user(user)
    current_app.logger.info("user signed up user_id=%s ip=%s", user.id, request.remote_addr)
    return jsonify({"message": "User created successfully", "user": user.to_dict()}), 201


@auth_bp.post("/login")
def login():
    form = _validate(LoginForm())
    user = User.query.filter_by(email=form.email.data.strip().lower()).first()
    if not user or not user.check_password(form.password.data):
        current_app.logger.info(
            "login failed email=%s ip=%s", form.email.data, request.remote_addr
        )
        return jsonify({"error": "Invalid credentials"}), 400
    login_user(user)
    current_app.logger.info("user logged in user_id=%s ip=%s", user.id, request.remote_addr)
    return jsonify({"message": "Login successful", "user": user.to_dict()})


@auth_bp.route("/logout", methods=["GET", "POST"])
def logout():
    if current_user.is_authenticated:
        logout_user()
    return jsonify({"message": "Logout successful"})
