# Routers module for GladiatorRX API
from app.routers import auth
from app.routers import invitations
from app.routers import team
from app.routers import waitlist
from app.routers import onboarding
from app.routers import admin
from app.routers import billing
