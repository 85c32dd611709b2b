from geoattend.schemas.coordinate import schema as coordinate_schema

schema = {
    "type": "object",
    "properties": {
        "latitude": coordinate_schema["properties"]["latitude"],
        "longitude": coordinate_schema["properties"]["longitude"],
        "accuracy": {"type": "number", "minimum": 0},
    },
    "required": ["latitude", "longitude"],
}
