"""Domain records for SAM-methodology RPA projects.

Projects own phases and disruptive events; phases own activities. Activities
carry two schedules side by side: the current one, freely edited, and a
write-once baseline set by the baseline manager.
"""
