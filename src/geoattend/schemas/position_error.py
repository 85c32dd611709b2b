schema = {
    "type": "object",
    "properties": {
        "code": {
            "type": "string",
            "enum": ["permission_denied", "position_unavailable", "timeout", "unsupported"],
        },
        "message": {"type": "string"},
    },
    "required": ["code"],
}
