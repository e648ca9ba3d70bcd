"""
Minimarket web orders: lifecycle, receipts and notifications
"""
