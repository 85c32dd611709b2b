schema = {
    "type": "object",
    "properties": {
        "site_id": {"type": "string", "minLength": 1},
    },
    "required": ["site_id"],
}
