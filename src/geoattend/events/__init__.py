from geoattend.events.event_stream import EventStream, attendance_event_stream

__all__ = ["EventStream", "attendance_event_stream"]
