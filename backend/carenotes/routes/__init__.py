"""
CareNotes Backend - API Routes Package
=======================================

Route Inventory:
    - children.py:    /api/children, /api/organisations (+ monitoring lists)
    - placements.py:  /api/placements, /api/placement-requests, /api/placement-reviews
    - agreements.py:  /api/placements/{id}/agreements, /api/agreements
    - finance.py:     pocket money, allowances, savings accounts, finance summary
    - hr.py:          /api/hr/employees, /api/hr/time-off, /api/hr/shift-swaps
    - medication.py:  /api/children/{id}/medications, /api/medications
    - health.py:      GET /health (no authentication)

Routes are thin: read the request, call a service, return what it returns.
Business rules live in the services.
"""
