# core/constants.py
USER_ROLE_CHOICES = (
    ('employer', 'Employer'),      # Posts jobs and accepts bids
    ('freelancer', 'Freelancer'),  # Bids on jobs and delivers the work
    ('admin', 'Admin'),
)

# Older clients send these names for the employer role
USER_ROLE_ALIASES = {
    'recruiter': 'employer',
    'client': 'employer',
}

JOB_STATUS_CHOICES = (
    ('open', 'Open'),              # Initial state when job is created
    ('bidding', 'Bidding'),        # Job is receiving bids
    ('closed', 'Closed'),          # Bidding finished, job allocated to a freelancer
    ('cancelled', 'Cancelled'),    # Job was cancelled by the employer
)

JOB_TYPE_CHOICES = (
    ('Full-time', 'Full-time'),
    ('Part-time', 'Part-time'),
    ('Contract', 'Contract'),
    ('Internship', 'Internship'),
)

BID_STATUS_CHOICES = (
    ('pending', 'Pending'),      # Freelancer bid, awaiting employer response
    ('accepted', 'Accepted'),    # Employer accepted the bid, job allocated
    ('rejected', 'Rejected'),    # Employer rejected the bid, or another bid won
)

MILESTONE_PAYMENT_STATUS_CHOICES = (
    ('PENDING', 'Pending'),
    ('PAID', 'Paid'),
    ('RELEASED', 'Released'),
)

TRANSACTION_STATUS_CHOICES = (
    ('CREATED', 'Created'),      # Order placed with the gateway, awaiting payment
    ('SUCCESS', 'Success'),
    ('FAILED', 'Failed'),
)

MESSAGE_TYPE_CHOICES = (
    ('text', 'Text'),
    ('file', 'File'),
    ('image', 'Image'),
)

# Bidding window limits, in hours
MIN_BIDDING_DURATION = 1
MAX_BIDDING_DURATION = 720

# Project progress ladder shared by progress tracking and milestone payments
PROGRESS_LEVELS = {
    0: {'status': 'Not Started', 'percentage': 0},
    1: {'status': 'Work Started', 'percentage': 20},
    2: {'status': 'Initial Development', 'percentage': 40},
    3: {'status': 'Midway Completed', 'percentage': 60},
    4: {'status': 'Almost Done', 'percentage': 80},
    5: {'status': 'Completed', 'percentage': 100},
}
FINAL_PROGRESS_LEVEL = max(PROGRESS_LEVELS)
PROJECT_STATUS_CHOICES = tuple(
    (level['status'], level['status']) for level in PROGRESS_LEVELS.values()
)
