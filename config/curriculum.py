"""CFA Level 1 curriculum reference data.

Topic ids, display names, exam weights, the training material folder for
each topic and the seed keywords used when the blog cron creates
categories.
"""

CFA_LEVEL_1_TOPICS = [
    {
        "id": "ethical-professional-standards",
        "name": "Ethical and Professional Standards",
        "exam_weight": "15-20%",
        "folder": "Ethical and professional Standards",
        "blog_keywords": ["CFA ethics", "standards of practice", "code of conduct"],
        "subtopics": [
            "Ethics and Trust in the Investment Profession",
            "Code of Ethics and Standards of Professional Conduct",
            "Guidance for Standards I-VII",
            "Introduction to the Global Investment Performance Standards (GIPS)",
            "Ethics Application",
        ],
    },
    {
        "id": "quantitative-methods",
        "name": "Quantitative Methods",
        "exam_weight": "6-9%",
        "folder": "Quantitative Methods",
        "blog_keywords": ["time value of money", "statistics", "probability"],
        "subtopics": [
            "Rates and Returns",
            "Time Value of Money in Finance",
            "Statistical Measures of Asset Returns",
            "Probability Trees and Conditional Expectations",
            "Portfolio Mathematics",
            "Simulation Methods",
            "Estimation and Inference",
            "Hypothesis Testing",
            "Parametric and Non-Parametric Tests of Independence",
            "Simple Linear Regression",
            "Introduction to Big Data Techniques",
        ],
    },
    {
        "id": "economics",
        "name": "Economics",
        "exam_weight": "6-9%",
        "folder": "Economics",
        "blog_keywords": ["microeconomics", "macroeconomics", "monetary policy"],
        "subtopics": [
            "The Firm and Market Structures",
            "Understanding Business Cycles",
            "Fiscal Policy",
            "Monetary Policy",
            "Introduction to Geopolitics",
            "International Trade",
            "Capital Flows and the FX Market",
            "Exchange Rate Calculations",
        ],
    },
    {
        "id": "financial-statement-analysis",
        "name": "Financial Statement Analysis",
        "exam_weight": "11-14%",
        "folder": "Financial Statement Analysis",
        "blog_keywords": ["financial ratios", "balance sheet", "income statement"],
        "subtopics": [],
    },
    {
        "id": "corporate-issuers",
        "name": "Corporate Issuers",
        "exam_weight": "6-9%",
        "folder": "Corporate Issuers",
        "blog_keywords": ["corporate governance", "capital structure", "dividends"],
        "subtopics": [],
    },
    {
        "id": "equity-investments",
        "name": "Equity Investments",
        "exam_weight": "11-14%",
        "folder": "Equity Investments",
        "blog_keywords": ["stock valuation", "equity markets", "industry analysis"],
        "subtopics": [],
    },
    {
        "id": "fixed-income",
        "name": "Fixed Income",
        "exam_weight": "11-14%",
        "folder": "Fixed Income",
        "blog_keywords": ["bond valuation", "interest rates", "yield curve"],
        "subtopics": [],
    },
    {
        "id": "derivatives",
        "name": "Derivatives",
        "exam_weight": "5-8%",
        "folder": "Derivatives",
        "blog_keywords": ["options", "futures", "forwards", "swaps"],
        "subtopics": [],
    },
    {
        "id": "alternative-investments",
        "name": "Alternative Investments",
        "exam_weight": "7-10%",
        "folder": "Alternative Investments",
        "blog_keywords": ["private equity", "real estate", "hedge funds"],
        "subtopics": [
            "Alternative Investment Performance and Returns",
            "Investments in Private Capital: Equity and Debt",
            "Real Estate and Infrastructure",
            "Natural Resources",
            "Hedge Funds",
            "Introduction to Digital Assets",
        ],
    },
    {
        "id": "portfolio-management",
        "name": "Portfolio Management",
        "exam_weight": "8-12%",
        "folder": "Portfolio Management",
        "blog_keywords": ["asset allocation", "risk management", "portfolio theory"],
        "subtopics": [
            "Portfolio Risk and Return: Part I",
            "Portfolio Risk and Return: Part II",
            "Portfolio Management: An Overview",
            "Basics of Portfolio Planning and Construction",
            "The Behavioral Biases of Individuals",
            "Introduction to Risk Management",
        ],
    },
]

TOPIC_NAMES = [t["name"] for t in CFA_LEVEL_1_TOPICS]

TOPIC_FOLDER_MAP = {t["id"]: t["folder"] for t in CFA_LEVEL_1_TOPICS}

CURRICULUM_VERSION = "cfa-l1-2026"
