"""
Staffing Module - Users, candidates, trainings and payments read by reports.
"""
