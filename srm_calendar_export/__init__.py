"""
Export an SRM Academia timetable and academic planner to iCalendar.
"""
__version__ = "0.1.0"
