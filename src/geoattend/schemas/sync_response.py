# Reply of the remote sync endpoint: one verdict per submitted logId
schema = {
    "type": "object",
    "properties": {
        "message": {"type": "string"},
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "logId": {"type": "string"},
                    "synced": {"type": "boolean"},
                    "message": {"type": ["string", "null"]},
                },
                "required": ["logId", "synced"],
            },
        },
    },
    "required": ["results"],
}
