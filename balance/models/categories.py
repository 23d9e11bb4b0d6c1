"""Known category tags, grouped per transaction type."""
from typing import Dict, List

INCOME_CATEGORIES: Dict[str, List[str]] = {
    "Employment Income": ["bonus", "commission", "hourly-wages", "overtime", "salary", "tips-gratuities"],
    "Business & Self-Employment": [
        "affiliate-income",
        "business-revenue",
        "consulting-fees",
        "freelance-income",
        "royalties",
    ],
    "Investment Income": ["capital-gains", "crypto-gains", "dividends", "interest", "rental-income"],
    "Passive Income": ["ad-revenue", "automated-business", "licensing-fees", "subscription-revenue"],
    "Government & Benefits": [
        "grants-subsidies",
        "pension",
        "social-security",
        "tax-refund",
        "unemployment-benefits",
    ],
    "Other Income": [
        "gifts",
        "inheritance",
        "lottery-gambling",
        "rebates-cashback",
        "reimbursements",
        "sold-items",
        "other",
    ],
}

INVESTMENT_CATEGORIES: Dict[str, List[str]] = {
    "Savings & Deposits": ["savings-account", "term-deposits", "high-yield-savings", "money-market"],
    "Cryptocurrency": ["bitcoin", "ethereum", "altcoins", "crypto-staking", "binance-p2p"],
    "Stocks & Bonds": ["individual-stocks", "mutual-funds", "etfs", "government-bonds", "corporate-bonds"],
    "Real Estate": ["real-estate-investment", "reits", "property-investment"],
    "Other Investments": ["precious-metals", "commodities", "trusts", "other-investments"],
}

EXPENSE_CATEGORIES: Dict[str, List[str]] = {
    "Business Expenses": [
        "business-travel",
        "equipment",
        "marketing-advertising",
        "office-supplies",
        "professional-fees",
        "software-subscriptions",
    ],
    "Charitable & Gifts": ["charitable-subscriptions", "donations", "gifts", "charity"],
    "Childcare": ["babysitting", "child-support", "daycare", "kids-activities", "school-supplies", "toys-games"],
    "Education": ["books-supplies", "online-courses", "student-loans", "tutoring", "tuition"],
    "Entertainment": [
        "books-magazines",
        "games-apps",
        "hobbies",
        "music-streaming",
        "sports-recreation",
        "vacation-travel",
        "movies",
        "concerts",
        "theaters",
        "night-clubs",
    ],
    "Financial Obligations": [
        "bank-fees",
        "credit-card-payments",
        "investment-contributions",
        "life-insurance",
        "personal-loans",
        "savings",
        "taxes",
    ],
    "Food & Dining": [
        "alcohol-beverages",
        "coffee-shops",
        "delivery-takeout",
        "fast-food",
        "groceries",
        "restaurants",
    ],
    "Healthcare": [
        "dental",
        "doctor-visits",
        "fitness-gym",
        "health-insurance",
        "hospital-emergency",
        "prescriptions",
        "therapy-counseling",
        "vision",
        "pharmacy",
    ],
    "Housing": [
        "furniture-appliances",
        "home-insurance",
        "maintenance-repairs",
        "property-tax",
        "rent-mortgage",
        "cleaning-products",
        "electronics",
        "kitchen-utensils",
        "household-goods",
    ],
    "Miscellaneous": [
        "cash-withdrawals",
        "cigarettes",
        "fines-penalties",
        "legal-fees",
        "lottery-gambling",
        "other",
        "subscriptions",
        "tobacco-vaping",
    ],
    "Personal Care": [
        "cosmetics-skincare",
        "haircuts-salon",
        "laundry-dry-cleaning",
        "shoes",
        "spa-massage",
        "clothing",
    ],
    "Pets": ["grooming", "pet-food", "pet-insurance", "pet-supplies", "veterinary"],
    "Transportation": [
        "car-insurance",
        "car-payment",
        "gas-fuel",
        "interurban-travel",
        "international-travel",
        "maintenance-repairs",
        "parking",
        "public-transit",
        "rideshare-taxi",
        "tolls",
        "vehicle-registration",
    ],
    "Utilities": [
        "cable-streaming",
        "electricity",
        "gas",
        "heating",
        "internet",
        "phone",
        "trash-recycling",
        "water-sewer",
    ],
}

CATEGORY_GROUPS: Dict[str, Dict[str, List[str]]] = {
    "income": INCOME_CATEGORIES,
    "expense": EXPENSE_CATEGORIES,
    "investment": INVESTMENT_CATEGORIES,
}


def categories_for(transaction_type: str) -> Dict[str, List[str]]:
    """Grouped category tags for a transaction type."""
    return CATEGORY_GROUPS.get(transaction_type, {})


def known_categories() -> List[str]:
    """Every known tag across all types, sorted and de-duplicated."""
    tags = set()
    for groups in CATEGORY_GROUPS.values():
        for options in groups.values():
            tags.update(options)
    return sorted(tags)


def is_known_category(category: str) -> bool:
    return category in known_categories()


def format_category_name(category: str) -> str:
    """Turn a tag like 'rent-mortgage' into 'Rent Mortgage'."""
    return " ".join(part.capitalize() for part in category.replace("_", "-").split("-") if part)
