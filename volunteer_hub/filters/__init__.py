"""Multi-criteria volunteer filtering.

A filter is a list of clauses (general column, role membership or cohort membership), each with its
own AND/OR operator, combined by a global AND/OR operator into one set of volunteer ids.
"""
