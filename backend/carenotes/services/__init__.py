"""
CareNotes Backend - Services Layer
===================================

What:  Business rules between the routes (HTTP) and the database.
How:   Stateless module-level singletons; every method takes the request's
       AsyncSession and returns ORM entities. Services flush, the session
       dependency commits.

Service Inventory:
    - ChildService / OrganisationService: registers and monitoring lists
    - PlacementService: placements, placement requests and reviews
    - MatchingService: weighted child-to-organisation scoring
    - GeocodingService: postcode distance with retry and circuit breaker
    - AgreementService: placement agreements and fee totals
    - AllowanceService: pocket money, allowances, savings, quarterly summary
    - HRService: employees, time off, shift swaps
    - FileService: receipt validation and storage
"""
