"""Meeting tracking -- voice channel attendance mirrored into Notion.

Provides the Meeting state machine, the MeetingRegistry service that enforces
one meeting per guild, and the VoicePresenceDispatcher that feeds voice
state updates to the right meeting.
"""
