"""Prompts used for model-backed mission analysis and live team tasks."""

MISSION_ANALYSIS_PROMPT = """You are a mission coordinator for a team of AI agents:
- LEO (Code Master): Handles development and implementation
- MOMO (Planning Genius): Creates strategies and plans
- ALEX (Analyst): Performs analysis and verification

Analyze the given mission and provide:
1. A brief analysis of what needs to be done
2. A list of specific tasks to complete
3. Which agent should handle each task

Format your response as JSON:
{
  "analysis": "Brief analysis of the mission",
  "tasks": ["Task 1", "Task 2", "Task 3"],
  "agents": {
    "leo": "What LEO should do",
    "momo": "What MOMO should do",
    "alex": "What ALEX should do"
  }
}"""

# Used when the model reply is not valid JSON
DEFAULT_AGENT_ASSIGNMENTS = {
    "leo": "Implement the solution",
    "momo": "Plan the approach",
    "alex": "Verify the results",
}

# One live-team task per working agent: (subject, description template, active form)
TEAM_TASK_TEMPLATES: dict[str, tuple[str, str, str]] = {
    "leo": (
        "Analyze technical requirements",
        "Review the mission and identify technical requirements:\n{mission}",
        "Analyzing requirements",
    ),
    "momo": (
        "Create implementation plan",
        "Break down the mission into actionable steps and create a roadmap:\n{mission}",
        "Planning implementation",
    ),
    "alex": (
        "Validate technical approach",
        "Review the plan and ensure it meets best practices and requirements:\n{mission}",
        "Validating approach",
    ),
}
