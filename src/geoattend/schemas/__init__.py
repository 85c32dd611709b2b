from geoattend.schemas.coordinate import schema as coordinate_schema
from geoattend.schemas.position_report import schema as position_report_schema
from geoattend.schemas.position_error import schema as position_error_schema
from geoattend.schemas.geofence_site import schema as geofence_site_schema
from geoattend.schemas.geofence_site import update_schema as geofence_site_update_schema
from geoattend.schemas.select_site import schema as select_site_schema
from geoattend.schemas.sync_response import schema as sync_response_schema
from geoattend.schemas.sync_batch import schema as sync_batch_schema
from geoattend.schemas.network_status import schema as network_status_schema
from geoattend.schemas.settings_update import schema as settings_update_schema

def validate_data(data, schema):
    """Simple validation function"""
    from jsonschema import validate as jsonschema_validate
    from jsonschema.exceptions import ValidationError
    try:
        jsonschema_validate(instance=data, schema=schema)
        return True, None
    except ValidationError as e:
        return False, e.message

__all__ = [
    'coordinate_schema',
    'position_report_schema',
    'position_error_schema',
    'geofence_site_schema',
    'geofence_site_update_schema',
    'select_site_schema',
    'sync_response_schema',
    'sync_batch_schema',
    'network_status_schema',
    'settings_update_schema',
    'validate_data',
]
