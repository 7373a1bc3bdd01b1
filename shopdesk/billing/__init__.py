"""
shopdesk/billing
----------------
Money maths shared by purchasing and orders: line items, totals,
session-held drafts and invoice numbering. No blueprint of its own;
draft_routes adds the draft endpoints to the purchasing and orders
blueprints.
"""
