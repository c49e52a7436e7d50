"""Example jobs.

Point ``JOBSPINE_JOB_MODULES`` at ``["jobspine.jobs"]`` (or run
``jobspine run jobspine.jobs``) to schedule them.
"""
