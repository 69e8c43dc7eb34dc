from .schema import Action, ActionSpec, ParamSpec, ParamType, decode_action, decode_actions, encode_action

__all__ = [
    "Action",
    "ActionSpec",
    "ParamSpec",
    "ParamType",
    "decode_action",
    "decode_actions",
    "encode_action",
]
