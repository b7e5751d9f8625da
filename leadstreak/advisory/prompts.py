"""Prompt templates for the advisory service, one per advice kind."""

ADJUST_TASK_PROMPT = """The user missed a task: "{title}" ({description}).
Reason given: "{reason}".
The user forfeited a stake of {stake_amount} crypto.

Analyze why this might have happened and provide:
1. A brief empathetic but firm strategic recommendation for the future.
2. A "Suggested Replacement Task" that is more manageable or adjusted based on the reason.

Respond with a JSON object only:
{{"recommendation": "...", "suggestedTask": {{"title": "...", "description": "...", "stakeAmount": 0.1}}}}"""

COACHING_PROMPT = """Analyze my recent productivity performance. I have missed {missed_count} commitments recently.
My task history is: {history}.
Give me deep strategic advice on how to fix my lead generation pipeline and stay consistent."""

DISCOVER_LEADS_PROMPT = """Find 5 potential business leads (people) in the {niche} industry specifically located in {location}.
The primary goal of this outreach is: {goal}.
Search across LinkedIn, X (Twitter), and Facebook.
Focus on founders, directors, or decision makers who would be interested in the goal mentioned.
Provide a list including their name, role, company, and their social profile URL or handle.
Identify which platform the profile belongs to and specific recent interests or news about them that aligns with the goal: {goal}."""

STRUCTURE_LEADS_PROMPT = """Parse this lead information into a structured JSON array. Each object should have
'name', 'title', 'company', 'email' (if found, else null), 'contactInfo' (the URL or handle),
'platform' (must be 'LinkedIn', 'X', or 'Facebook'), and a 'summary' of why they are a good lead.

Input:
---
{raw_text}
---

JSON output (array only, no explanation):"""

DRAFT_MESSAGE_PROMPT = """Write a high-converting, professional introductory message for {platform} to {name} from {company}.
Context about them: {summary}.
My value proposition: {value_prop}.
Keep it appropriate for {platform} (shorter and punchier for X, more professional for LinkedIn). Under 100 words."""

SCAN_INBOX_PROMPT = """Simulate an agent checking a user's inbox. We sent a message to {name} on {platform}.
Decide if they responded favorably, didn't respond, or declined.
Respond with a JSON object only, with:
1. 'status': one of ['responded', 'no-reply', 'declined']
2. 'analysis': a brief summary of what the agent found or why it's categorized this way."""

DRAFT_FOLLOW_UP_PROMPT = """Generate a follow-up message for {name} at {company}.
Current situation: {status}.
Agent analysis of last interaction: {analysis}.
Platform: {platform}.
User Template: {template}.

The goal is to move the needle. If they didn't reply, be gentle and add value. If they replied, acknowledge their points.
Use the user's template as a style guide but make it sound natural for {platform}.
Keep it under 70 words."""
