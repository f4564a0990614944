# Models module for GladiatorRX API
from app.models.team import OrgRole, MemberStatus, TeamMember, MemberRoleUpdate
from app.models.invitation import (
    InvitationStatus, InvitationCreate, InvitationResponse, InvitationAccept
)
from app.models.waitlist import (
    WaitlistStatus, WaitlistJoin, WaitlistEntry, WaitlistStatusUpdate,
    WaitlistStats, WaitlistListing
)
from app.models.auth import (
    LoginRequest, AuthResponse, ForgotPasswordRequest, ResetPasswordRequest,
    OnboardingComplete
)
from app.models.billing import (
    Plan, BillingInterval, SubscriptionStatus, InvoiceStatus,
    Subscription, Invoice, CheckoutRequest, CheckoutResponse, PortalResponse
)
from app.models.admin import SendEmailRequest, PlatformStats
