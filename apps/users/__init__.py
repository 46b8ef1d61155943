"""Users app package.

Defines the platform user model and its roles. Coordinators purchase
capacity chunks and hand out slices of them; customers are the people
those slices are assigned to and form the customer directory. Use
``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout the
project.
"""
