"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(
        required=True, load_only=True, validate=validate.Length(min=8, max=128)
    )
    full_name = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=100))
    phone = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=32))


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Input payload carrying an opaque refresh credential."""

    refresh_token = fields.String(
        required=True, load_only=True, validate=validate.Length(min=1, max=512)
    )


class LogoutSchema(Schema):
    """Input payload for logout; omit ``refresh_token`` to end every session."""

    refresh_token = fields.String(
        load_default=None, allow_none=True, load_only=True, validate=validate.Length(min=1, max=512)
    )


class UserSchema(Schema):
    """Public user representation."""

    id = fields.Integer(required=True)
    email = fields.Email(required=True)
    full_name = fields.String(allow_none=True)
    role = fields.String(required=True)
    phone = fields.String(allow_none=True)


class TokenPairSchema(Schema):
    """Response payload for register/login."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.String(dump_default="Bearer")
    user = fields.Nested(UserSchema, required=True)


class RefreshResponseSchema(Schema):
    """Response payload for a refresh."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.String(dump_default="Bearer")
    user_id = fields.String(required=True)
