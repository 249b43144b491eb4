"""Volunteer management data layer: records for volunteers, roles and cohorts, and a
multi-criteria filter engine over them.
"""
