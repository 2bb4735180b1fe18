"""
Analysis instructions sent alongside the resume document.
"""

from langchain_core.prompts import PromptTemplate

RESPONSE_FORMAT = """{
  "overallScore": integer 0-100,
  "toneAndStyle": {
    "score": integer 0-100,
    "tips": [{"type": "good" | "improve", "tip": "short title", "explanation": "detailed explanation"}]
  },
  "content": {"score": integer 0-100, "tips": [same shape as above]},
  "structure": {"score": integer 0-100, "tips": [same shape as above]},
  "skills": {"score": integer 0-100, "tips": [same shape as above]}
}"""

INSTRUCTIONS_TEMPLATE = PromptTemplate.from_template(
    "You are an expert in applicant tracking systems and resume review. "
    "Analyze and rate the attached resume and suggest how to improve it. "
    "Scores may be low if the resume is weak; point out mistakes and areas "
    "for improvement plainly so the candidate can act on them. "
    "Take the job the candidate is applying for into account.\n"
    "The job title is: {job_title}\n"
    "The job description is: {job_description}\n"
    "Provide the feedback using the following format:\n"
    "{response_format}\n"
    "Return the analysis as a single JSON object with no surrounding text, "
    "comments or code fences. Give 3-4 tips per category."
).partial(response_format=RESPONSE_FORMAT)


def prepare_instructions(job_title: str, job_description: str) -> str:
    """Render the analysis instructions with both job fields embedded verbatim."""
    return INSTRUCTIONS_TEMPLATE.format(
        job_title=job_title or "",
        job_description=job_description or "",
    )
