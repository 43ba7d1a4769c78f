"""
repositories/ - Data Access Layer
==================================
One repository per table (payments, reminders). Rows go in and come out
through the models' ``to_map`` / ``from_map`` layout.
"""
