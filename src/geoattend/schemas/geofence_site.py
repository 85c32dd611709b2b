from geoattend.schemas.coordinate import schema as coordinate_schema

# Full schema for creation; updates use the same properties without "required"
properties = {
    "id": {"type": "string", "minLength": 1},
    "name": {"type": "string", "minLength": 1},
    "center": coordinate_schema,
    "radius_km": {"type": "number", "exclusiveMinimum": 0},
    "polygon": {"type": "array", "items": coordinate_schema},
}

schema = {
    "type": "object",
    "properties": properties,
    "required": ["name", "center", "radius_km"],
}

update_schema = {
    "type": "object",
    "properties": {key: value for key, value in properties.items() if key != "id"},
    "minProperties": 1,
}
