schema = {
    "type": "object",
    "properties": {
        "online": {"type": "boolean"},
    },
    "required": ["online"],
}
