"""Worker runner for the EduFam Temporal components.

Every worker runs the same image; a CLI argument (or COMPONENT) selects which
component's activities it registers.
"""
