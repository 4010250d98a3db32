from src.models.users import User
from src.models.group import Group, GroupMember, GroupRole
from src.models.challenge import Challenge
from src.models.post import Post, PostLike
from src.models.progress import ChallengeProgress
