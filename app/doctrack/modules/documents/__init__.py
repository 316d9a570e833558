"""
Documents module.

- Documents move between departments and statuses through the lifecycle service
- Every department or status change appends one row to the document history ledger
- Creation and routing each commit the document row and its history row together
"""
