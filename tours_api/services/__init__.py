"""
Service layer for the Tours API.

Business rules that sit between routes and repositories:
- tour_query: turns a validated listing query into filter/sort/projection/page
- tour_service: tour CRUD, statistics and the monthly plan
- user_service / auth_service: user CRUD, signup, login and password flows
"""
