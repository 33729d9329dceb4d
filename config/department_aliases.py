"""Department alias vocabulary for the natural-language query parser.

Aliases map what people type to the canonical department name stored in the
catalog. An alias only takes effect when that department exists in the
database. Aliases written in capitals are acronyms that double as English
words ("it", "me"); they only match when the question spells them in capitals.
"""

DEPARTMENT_ALIASES = [
    {
        "department": "Computer Science",
        "aliases": ["cs", "cse", "computer science"],
    },
    {
        "department": "Information Technology",
        "aliases": ["IT", "information technology"],
    },
    {
        "department": "Electrical Engineering",
        "aliases": ["ee", "electrical"],
    },
    {
        "department": "Mechanical Engineering",
        "aliases": ["ME", "mechanical"],
    },
    {
        "department": "Electronics",
        "aliases": ["ece", "electronics"],
    },
    {
        "department": "Civil Engineering",
        "aliases": ["civil"],
    },
    {
        "department": "Chemical Engineering",
        "aliases": ["chemical"],
    },
    {
        "department": "Business Administration",
        "aliases": ["BA", "business", "mba"],
    },
    {
        "department": "Economics",
        "aliases": ["economics", "econ"],
    },
    {
        "department": "Physics",
        "aliases": ["physics"],
    },
    {
        "department": "Chemistry",
        "aliases": ["chemistry"],
    },
    {
        "department": "Data Analytics",
        "aliases": ["data science", "data analytics", "analytics"],
    },
]

VOCABULARY_VERSION = "vocab-v1"
