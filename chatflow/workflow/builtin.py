"""
Predefined productivity workflows and the triggers that start them.

Parsed through WorkflowLoader at startup, so this data goes through the same
validation as catalogs loaded from YAML files.
"""

BUILTIN_CATALOG = {
    "workflows": {
        "meeting-to-tasks": {
            "name": "Meeting to Tasks",
            "description": "Extract action items from meeting transcripts and create tasks",
            "created_by": "system",
            "default_parameters": {"selected_meeting_id": ""},
            "steps": [
                {
                    "id": "get-transcripts",
                    "order": 1,
                    "name": "Get Meeting Transcripts",
                    "description": "Retrieve recent meeting transcripts",
                    "plugin": "MeetingPlugin",
                    "function": "GetMeetingTranscripts",
                    "parameters": {"count": 5, "days_back": 7},
                    "outputs": {"result": "meeting_transcripts"},
                },
                {
                    "id": "propose-tasks",
                    "order": 2,
                    "name": "Propose Tasks from Meeting",
                    "description": "Analyze the selected meeting and propose tasks",
                    "plugin": "MeetingPlugin",
                    "function": "ProposeTasksFromMeeting",
                    "parameters": {"meeting_id": "{{selected_meeting_id}}"},
                    "depends_on": ["get-transcripts"],
                    "outputs": {"result": "task_proposals"},
                },
                {
                    "id": "create-tasks",
                    "order": 3,
                    "name": "Create Tasks",
                    "description": "Create the proposed tasks",
                    "plugin": "MeetingPlugin",
                    "function": "CreateTasksFromProposals",
                    "parameters": {"task_proposals_json": "{{task_proposals}}"},
                    "depends_on": ["propose-tasks"],
                    "outputs": {"result": "created_tasks"},
                },
            ],
        },
        "meeting-follow-up": {
            "name": "Meeting Follow-up",
            "description": "Summarize a meeting and send a follow-up email",
            "created_by": "system",
            "default_parameters": {"selected_meeting_id": "", "attendee_email": "", "meeting_subject": ""},
            "steps": [
                {
                    "id": "get-meeting-transcript",
                    "order": 1,
                    "name": "Get Meeting Transcript",
                    "plugin": "MeetingPlugin",
                    "function": "GetMeetingTranscript",
                    "parameters": {"meeting_id": "{{selected_meeting_id}}"},
                    "outputs": {"result": "transcript"},
                },
                {
                    "id": "summarize-meeting",
                    "order": 2,
                    "name": "Summarize Meeting",
                    "plugin": "MeetingPlugin",
                    "function": "SummarizeMeeting",
                    "parameters": {"meeting_id": "{{selected_meeting_id}}"},
                    "depends_on": ["get-meeting-transcript"],
                    "outputs": {"result": "summary"},
                },
                {
                    "id": "extract-decisions",
                    "order": 3,
                    "name": "Extract Key Decisions",
                    "plugin": "MeetingPlugin",
                    "function": "ExtractKeyDecisions",
                    "parameters": {"meeting_id": "{{selected_meeting_id}}"},
                    "depends_on": ["get-meeting-transcript"],
                    "outputs": {"result": "decisions"},
                },
                {
                    "id": "send-follow-up",
                    "order": 4,
                    "name": "Send Follow-up Email",
                    "plugin": "MailPlugin",
                    "function": "SendEmail",
                    "parameters": {
                        "to_email": "{{attendee_email}}",
                        "subject": "Meeting Follow-up: {{meeting_subject}}",
                        "body": "Meeting Summary:\n{{summary}}\n\nKey Decisions:\n{{decisions}}",
                        "importance": "normal",
                    },
                    "depends_on": ["summarize-meeting", "extract-decisions"],
                    "outputs": {"result": "email_sent"},
                },
            ],
        },
        "email-to-calendar": {
            "name": "Email to Calendar",
            "description": "Create calendar events from meeting requests in recent emails",
            "created_by": "system",
            "default_parameters": {
                "extracted_subject": "",
                "extracted_date_time": "",
                "extracted_attendees": "",
            },
            "steps": [
                {
                    "id": "search-emails",
                    "order": 1,
                    "name": "Search Meeting Emails",
                    "plugin": "MailPlugin",
                    "function": "GetRecentEmails",
                    "parameters": {"count": 10, "search_query": "meeting OR schedule OR appointment"},
                    "outputs": {"result": "recent_emails"},
                },
                {
                    "id": "create-calendar-event",
                    "order": 2,
                    "name": "Create Calendar Event",
                    "plugin": "CalendarPlugin",
                    "function": "CreateCalendarEvent",
                    "parameters": {
                        "subject": "{{extracted_subject}}",
                        "start_date_time": "{{extracted_date_time}}",
                        "duration_minutes": 60,
                        "attendees": "{{extracted_attendees}}",
                    },
                    "depends_on": ["search-emails"],
                    "outputs": {"result": "created_event"},
                },
            ],
        },
        "project-planning": {
            "name": "Project Planning",
            "description": "Capture a project, find time and book a planning meeting",
            "created_by": "system",
            "steps": [
                {
                    "id": "create-project-note",
                    "order": 1,
                    "name": "Create Project Note",
                    "plugin": "ToDoPlugin",
                    "function": "CreateNote",
                    "parameters": {
                        "note_content": "Project: {{user_message}}",
                        "details": "Project planning initiated on {{timestamp}}",
                        "priority": "high",
                    },
                    "outputs": {"result": "project_note"},
                },
                {
                    "id": "schedule-planning-meeting",
                    "order": 2,
                    "name": "Find Planning Slot",
                    "plugin": "CalendarPlugin",
                    "function": "FindNextAvailableSlot",
                    "parameters": {"duration_minutes": 60},
                    "depends_on": ["create-project-note"],
                    "outputs": {"result": "available_slot"},
                },
                {
                    "id": "create-planning-event",
                    "order": 3,
                    "name": "Book Planning Meeting",
                    "plugin": "CalendarPlugin",
                    "function": "CreateCalendarEvent",
                    "parameters": {
                        "subject": "Project Planning: {{user_message}}",
                        "start_date_time": "{{available_slot}}",
                        "duration_minutes": 60,
                        "description": "Planning session for the project noted on {{timestamp}}",
                    },
                    "depends_on": ["schedule-planning-meeting"],
                    "outputs": {"result": "planning_meeting"},
                },
            ],
        },
        "weekly-review": {
            "name": "Weekly Review",
            "description": "Review the week's events and tasks and write a summary note",
            "created_by": "system",
            "steps": [
                {
                    "id": "get-calendar-events",
                    "order": 1,
                    "name": "Get This Week's Events",
                    "plugin": "CalendarPlugin",
                    "function": "GetCalendarEvents",
                    "parameters": {"days_ahead": 7},
                    "outputs": {"result": "weekly_events"},
                },
                {
                    "id": "get-completed-tasks",
                    "order": 2,
                    "name": "Get Recent Tasks",
                    "plugin": "ToDoPlugin",
                    "function": "GetRecentNotes",
                    "parameters": {"count": 20, "include_completed": True},
                    "outputs": {"result": "weekly_tasks"},
                },
                {
                    "id": "create-weekly-note",
                    "order": 3,
                    "name": "Create Weekly Review Note",
                    "plugin": "ToDoPlugin",
                    "function": "CreateNote",
                    "parameters": {
                        "note_content": "Weekly Review - {{timestamp}}",
                        "details": "Events: {{weekly_events}}\nTasks: {{weekly_tasks}}",
                        "priority": "normal",
                    },
                    "depends_on": ["get-calendar-events", "get-completed-tasks"],
                    "outputs": {"result": "weekly_review"},
                },
            ],
        },
    },
    "triggers": [
        {
            "id": "meeting-to-tasks-keywords",
            "workflow": "meeting-to-tasks",
            "type": "keyword",
            "keywords": [
                "meeting tasks",
                "action items from meeting",
                "create tasks from meeting",
                "meeting follow up",
            ],
            "priority": 10,
        },
        {
            "id": "meeting-to-tasks-transcript-intent",
            "workflow": "meeting-to-tasks",
            "type": "intent",
            "keywords": ["create tasks", "make tasks"],
            "conditions": {"workflow_state": "processing_meeting_transcript"},
            "priority": 10,
        },
        {
            "id": "meeting-follow-up-keywords",
            "workflow": "meeting-follow-up",
            "type": "keyword",
            "keywords": ["meeting follow up", "send meeting summary", "meeting recap"],
            "priority": 9,
        },
        {
            "id": "email-to-calendar-keywords",
            "workflow": "email-to-calendar",
            "type": "keyword",
            "keywords": ["schedule from email", "create meeting from email", "email to calendar"],
            "priority": 8,
        },
        {
            "id": "project-planning-keywords",
            "workflow": "project-planning",
            "type": "keyword",
            "keywords": ["plan project", "create project plan", "project tasks", "break down project"],
            "priority": 7,
        },
        {
            "id": "weekly-review-keywords",
            "workflow": "weekly-review",
            "type": "keyword",
            "keywords": ["weekly review", "week summary", "weekly report"],
            "priority": 6,
        },
        {
            "id": "weekly-review-friday",
            "workflow": "weekly-review",
            "type": "schedule",
            "conditions": {"cron": "0 17 * * 5"},
            "priority": 6,
        },
    ],
}
