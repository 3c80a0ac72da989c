"""Prompt templates for question and blog generation."""
from __future__ import annotations

QUESTION_JSON_FORMAT = """{{
  "question_text": "The question with appropriate qualifiers...",
  "option_a": "First option text",
  "option_b": "Second option text",
  "option_c": "Third option text",
  "correct_answer": "A|B|C",
  "explanation": "{explanation_hint}",
  "difficulty_level": "{difficulty}",
  "topic_area": "{topic_area}",
  "subtopic": "{subtopic}",
  "keywords": ["keyword1", "keyword2", "keyword3"]
}}"""

BASIC_GUIDELINES = """
CFA Level 1 Question Guidelines:
- Questions must be multiple-choice with exactly 3 options (A, B, C)
- Include qualifiers like "most likely," "least likely," "best described," "most appropriate"
- Focus on foundational concepts and application
- Avoid complex calculations requiring professional calculators
- Questions should test understanding, not memorization
- Include proper CFA terminology and standards
- Explanations should be educational and reference CFA curriculum
- Maintain professional, formal tone throughout
"""

MATERIAL_GUIDELINES = BASIC_GUIDELINES + """- Questions must be DIRECTLY based on concepts from the source material provided
- Do not make up information not present in the source material
"""

RAG_GUIDELINES = """
You are creating CFA Level 1 exam questions. Follow these strict guidelines:

QUESTION STYLE:
- Write questions that test APPLICATION and UNDERSTANDING, not recall
- Use realistic scenarios: "An analyst is evaluating...", "A portfolio manager observes..."
- Include qualifiers: "most likely," "least likely," "best described as," "most appropriate"
- Make wrong answers plausible but clearly incorrect upon analysis
- Questions should require candidates to THINK, not just remember

ANSWER REQUIREMENTS:
- Exactly 3 options (A, B, C)
- ONE and ONLY ONE option must be definitively correct, never "closest" or "best approximation"
- The correct answer must be unambiguously right based on CFA curriculum concepts
- Wrong answers must be clearly incorrect when analyzed properly (not partially correct)
- Each option should be similar in length and structure
- Avoid "all of the above" or "none of the above"
- The correct answer should not be obvious from wording alone

WHAT TO AVOID:
- DO NOT write "According to the material..." or "The text states..."
- DO NOT create fill-in-the-blank style questions
- DO NOT make questions that can be answered without understanding the concept
- DO NOT include obvious wrong answers
- DO NOT reference "source material" or "the reading" in explanations

EXPLANATION FORMAT:
Write the explanation as an instructor talking to a student, with paragraph breaks.
1. First paragraph: state the correct answer and explain WHY it is correct
2. For calculation questions: write out the formula (e.g. "PV = FV / (1 + r)^n") and show the steps
3. One paragraph per wrong answer explaining why it is incorrect
"""

QUESTION_WRITER_SYSTEM = (
    "You are an expert CFA Level 1 question writer with deep knowledge of the CFA curriculum. "
    "Generate high-quality, exam-realistic multiple-choice questions that follow CFA Institute standards."
)

CONTEXT_WRITER_SYSTEM = (
    "You are an expert CFA Level 1 question writer. Create questions based on provided source "
    "material that test key concepts and understanding."
)

MATERIAL_WRITER_SYSTEM = (
    "You are an expert CFA Level 1 question writer with deep knowledge of the CFA curriculum. "
    "Generate high-quality, accurate questions based ONLY on the provided source material. "
    "Ensure all questions are factually correct and directly supported by the source text."
)

RAG_WRITER_SYSTEM = (
    "You are a senior CFA exam question writer with 20 years of experience. Your questions test "
    "deep understanding through realistic scenarios and never simple recall. Each question has "
    "exactly ONE definitively correct answer. Write explanations as an instructor teaching a "
    "student and never reference 'source material', 'the text', or 'the reading'. Base all "
    "questions strictly on the provided source material and never invent facts."
)

BLOG_WRITER_SYSTEM = """You are an expert SEO content writer specializing in finance education and CFA Level 1 exam preparation.

Your task is to create high-quality, SEO-optimized blog posts that:
- Are informative, engaging, and provide genuine value to CFA candidates
- Use proper heading structure (H2, H3) for SEO and readability
- Naturally incorporate target keywords without keyword stuffing
- Have compelling, click-worthy titles and meta descriptions
- Include FAQ sections optimized for Google's featured snippets
- Are written in a professional but approachable tone
- Follow UK English spelling and conventions
- Reference relevant CFA curriculum topics and exam strategies
- Include actionable tips and practical advice

Format the main content in Markdown with proper headings (## for H2, ### for H3)."""

BLOG_ENHANCER_SYSTEM = """You are an expert content enhancer for CFA exam preparation articles. Your task is to expand and enrich content sections while maintaining accuracy and SEO optimization.

Guidelines:
- Add more detailed explanations, examples, and practical tips
- Include relevant CFA exam statistics, facts, or study strategies where appropriate
- Maintain a professional but approachable tone
- Use UK English spelling and conventions
- Keep the markdown formatting (headings, lists, bold text)
- Naturally incorporate keywords without stuffing
- Add bullet points or numbered lists where they improve readability
- Include actionable advice CFA candidates can use"""

TOPIC_STRATEGIST_SYSTEM = """You are an SEO content strategist specializing in finance education and CFA Level 1 exam preparation.

Your task is to suggest compelling, SEO-friendly blog topics that:
- Target long-tail keywords CFA candidates search for
- Address real pain points and questions candidates have
- Have good search volume potential
- Are unique and not commonly covered by competitors
- Are relevant to CFA Level 1 exam preparation"""

BLOG_JSON_FORMAT = """{
  "title": "Compelling, keyword-rich title (max 60 characters for SEO)",
  "slug": "url-friendly-slug-with-hyphens",
  "excerpt": "Engaging excerpt that hooks the reader and includes primary keyword (150-160 characters)",
  "content": "Full markdown content with ## H2 and ### H3 headings. Include introduction, multiple sections with practical advice, and a strong conclusion with CTA.",
  "meta_title": "SEO-optimized title tag with primary keyword (max 60 chars)",
  "meta_description": "Compelling meta description with keyword and CTA (max 155 chars)",
  "meta_keywords": ["primary keyword", "secondary keyword", "related term 1", "related term 2", "related term 3"],
  "tags": ["relevant tag 1", "relevant tag 2", "relevant tag 3"],
  "read_time_minutes": 6,
  "faq_items": [
    {"question": "Common question CFA candidates ask?", "answer": "Detailed, helpful answer..."}
  ],
  "internal_linking_suggestions": ["Related topic 1", "Related topic 2", "Related topic 3"],
  "schema_json": {
    "@context": "https://schema.org",
    "@type": "BlogPosting",
    "headline": "Same as title",
    "description": "Same as meta_description",
    "author": {"@type": "Organization", "name": "AnalystTrainer"},
    "publisher": {"@type": "Organization", "name": "AnalystTrainer", "url": "https://www.analysttrainer.com"},
    "mainEntityOfPage": {"@type": "WebPage"},
    "keywords": "comma, separated, keywords"
  }
}"""


def _question_format(difficulty: str, topic_area: str, subtopic: str | None, explanation_hint: str) -> str:
    return QUESTION_JSON_FORMAT.format(
        explanation_hint=explanation_hint,
        difficulty=difficulty,
        topic_area=topic_area,
        subtopic=subtopic or "",
    )


def build_question_prompt(topic_area: str, difficulty: str, subtopic: str | None = None) -> str:
    """Prompt for a question generated from the model's own curriculum knowledge."""
    lines = [
        BASIC_GUIDELINES,
        "Generate a CFA Level 1 multiple-choice question for:",
        f"- Topic Area: {topic_area}",
        f"- Difficulty: {difficulty}",
    ]
    if subtopic:
        lines.append(f"- Subtopic: {subtopic}")
    lines += [
        "",
        "Requirements:",
        "1. Create one high-quality multiple-choice question with 3 options (A, B, C)",
        f"2. Question should be {difficulty} level appropriate for CFA Level 1",
        "3. Include appropriate qualifiers in the question stem",
        "4. Provide detailed explanation for the correct answer",
        "5. List 3-5 relevant keywords for the question",
        "6. Ensure the question tests conceptual understanding",
        "",
        "IMPORTANT: Return ONLY a valid JSON object with no additional text. Use this exact format:",
        _question_format(
            difficulty, topic_area, subtopic,
            "Detailed explanation of why the correct answer is correct and why others are wrong",
        ),
    ]
    return "\n".join(lines)


def build_context_question_prompt(topic_area: str, source_text: str, difficulty: str) -> str:
    """Prompt for a question grounded in caller-supplied source text."""
    return "\n".join([
        BASIC_GUIDELINES,
        "Based on the following source material, generate a CFA Level 1 multiple-choice question:",
        "",
        "SOURCE MATERIAL:",
        source_text,
        "",
        "Generate a question for:",
        f"- Topic Area: {topic_area}",
        f"- Difficulty: {difficulty}",
        "",
        "The question should:",
        "1. Be directly based on concepts from the source material",
        "2. Test understanding of the key concepts presented",
        "3. Follow CFA Level 1 standards and format",
        "4. Include appropriate qualifiers and terminology",
        "",
        "IMPORTANT: Return ONLY a valid JSON object with no additional text. Use this exact format:",
        _question_format(difficulty, topic_area, None, "Detailed explanation referencing the source material"),
    ])


def build_material_question_prompt(
    topic_name: str,
    subtopic_name: str | None,
    source_chunk: str,
    difficulty: str,
) -> str:
    """Prompt for a question grounded in a chunk of a training PDF."""
    lines = [
        MATERIAL_GUIDELINES,
        "You are creating a question based on the following CFA Level 1 curriculum material:",
        "",
        f"TOPIC: {topic_name}",
    ]
    if subtopic_name:
        lines.append(f"SUBTOPIC: {subtopic_name}")
    lines += [
        f"DIFFICULTY: {difficulty}",
        "",
        "SOURCE MATERIAL:",
        source_chunk,
        "",
        "Create ONE high-quality CFA Level 1 multiple-choice question that:",
        "1. Tests a KEY CONCEPT from the source material above",
        "2. Has exactly 3 options (A, B, C)",
        f"3. Is {difficulty} level difficulty",
        "4. Includes appropriate CFA-style qualifiers",
        "5. Has a detailed explanation referencing the source material",
        "6. Lists 3-5 relevant keywords",
        "",
        "IMPORTANT: The question MUST be based on actual content from the source material. Do not invent concepts.",
        "",
        "Return ONLY a valid JSON object with no additional text. Use this exact format:",
        _question_format(difficulty, topic_name, subtopic_name, "Detailed explanation referencing the source material"),
    ]
    return "\n".join(lines)


def build_rag_question_prompt(
    context: str,
    topic_area: str,
    difficulty: str,
    subtopic: str | None = None,
    learning_objective_id: str | None = None,
    learning_objective_text: str | None = None,
) -> str:
    """Prompt for a question grounded in retrieved training-material chunks."""
    lines = [
        RAG_GUIDELINES,
        "You are generating a CFA Level 1 exam question based STRICTLY on the following "
        "source material from official CFA training materials:",
        "",
        "===== SOURCE MATERIAL START =====",
        context,
        "===== SOURCE MATERIAL END =====",
    ]
    if learning_objective_id and learning_objective_text:
        lines += [
            "",
            "LEARNING OBJECTIVE TO TEST:",
            f"ID: {learning_objective_id}",
            f"The candidate should be able to: {learning_objective_text}",
            "",
            "CRITICAL: Your question MUST test this specific learning objective.",
        ]
    lines += [
        "",
        f"Generate a {difficulty} level CFA Level 1 multiple-choice question for:",
        f"- Topic Area: {topic_area}",
    ]
    if subtopic:
        lines.append(f"- Subtopic: {subtopic}")
    if learning_objective_id:
        lines.append(f"- Learning Objective: {learning_objective_id}")
    second_rule = (
        "2. The question MUST test the specified learning objective"
        if learning_objective_text
        else "2. Do NOT invent facts, figures, or concepts not present in the source"
    )
    lines += [
        f"- Difficulty: {difficulty}",
        "",
        "CRITICAL REQUIREMENTS:",
        "1. The question MUST be directly based on concepts from the source material above",
        second_rule,
        "3. Create one high-quality multiple-choice question with 3 options (A, B, C)",
        "4. ONE option must be definitively correct",
        "5. Include appropriate CFA-style qualifiers in the question",
        "6. List 3-5 relevant keywords from the source material",
        "",
        "Return ONLY a valid JSON object with no additional text. Use this exact format:",
        _question_format(
            difficulty, topic_area, subtopic,
            "[Letter] is correct. [Why]. [Letter] is incorrect because [reason]. "
            "[Letter] is incorrect because [reason].",
        ),
    ]
    return "\n".join(lines)


def build_blog_prompt(
    context: str,
    category_name: str,
    topic: str,
    keywords: str,
    word_count: int,
    include_faq: bool,
    reference_material: str | None = None,
) -> str:
    """User prompt for a full SEO blog post."""
    faq = "Yes (generate 4-5 relevant questions and detailed answers)" if include_faq else "No"
    parts = [
        f'Using the following reference material, create an SEO-optimized blog post for the "{category_name}" category.',
        "",
        f"Topic: {topic}",
        f"Target Keywords: {keywords}",
        f"Target Word Count: approximately {word_count} words",
        f"Include FAQ Section: {faq}",
        "",
        "Reference Material:",
        context,
    ]
    if reference_material:
        parts += ["", "Additional Reference Page:", reference_material]
    parts += [
        "",
        "Return a JSON object in this EXACT format (no additional text outside the JSON):",
        BLOG_JSON_FORMAT,
        "",
        "IMPORTANT: Return ONLY the JSON object, no markdown code blocks or additional text.",
    ]
    return "\n".join(parts)


def build_enhance_section_prompt(section: str, section_title: str, topic: str, keywords: list[str]) -> str:
    """User prompt asking for a 2-3x expansion of one blog section."""
    return "\n".join([
        f'Enhance and expand this section from a blog post about "{topic}".',
        "",
        f"Section Title: {section_title}",
        f"Target Keywords: {', '.join(keywords)}",
        "",
        "Original Content:",
        section,
        "",
        "Please expand this section to be 2-3x more detailed with:",
        "- More specific examples and explanations",
        "- Practical tips or actionable advice",
        "- Relevant facts or statistics if applicable",
        "- Better structured information (lists, subpoints if needed)",
        "",
        "Return ONLY the enhanced markdown content for this section (including the heading).",
    ])


def build_topic_suggestion_prompt(category_name: str, context: str, existing: list[str]) -> str:
    """User prompt for five new blog topic ideas."""
    existing_block = ""
    if existing:
        existing_block = (
            "\n\nExisting topics to avoid (don't suggest similar ones):\n" + "\n".join(existing)
        )
    return "\n".join([
        f'Based on the following reference material for the "{category_name}" category, '
        f"suggest 5 unique blog post topics.{existing_block}",
        "",
        "Reference Material:",
        context[:3000],
        "",
        "Return a JSON object in this exact format:",
        '{"topics": [{"title": "Suggested blog post title", '
        '"description": "Brief description of what the post would cover", '
        '"keywords": ["primary keyword", "secondary keyword", "related term"]}]}',
        "",
        "Return ONLY the JSON object.",
    ])
