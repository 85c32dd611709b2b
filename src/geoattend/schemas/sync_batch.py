# Batch accepted by the mock remote endpoint
schema = {
    "type": "array",
    "minItems": 1,
    "items": {
        "type": "object",
        "properties": {
            "logId": {"type": "string", "minLength": 1},
            "userId": {"type": "string"},
            "siteId": {"type": "string"},
            "siteName": {"type": "string"},
            "checkInTime": {"type": "string"},
            "checkOutTime": {"type": ["string", "null"]},
            "syncStatus": {"type": "string"},
        },
        "required": ["logId", "userId", "siteId", "checkInTime"],
    },
}
