# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


# Storage prefixes (one per bucket of the hosted platform).
PALM_IMAGES_PREFIX = "palm-images"
BLOG_IMAGES_PREFIX = "blog-images"
PROFILE_PICTURES_PREFIX = "profile-pictures"
ILLUSTRATIONS_PREFIX = "illustrations"

# Change feed tables.
PALM_SCANS_TABLE = "palm_scans"
PROFILES_TABLE = "profiles"
BLOGS_TABLE = "blogs"
BLOG_COMMENTS_TABLE = "blog_comments"

MAX_CHAT_MESSAGE_LENGTH = 4000
MAX_BLOG_TITLE_LENGTH = 200
MAX_BLOG_CONTENT_LENGTH = 50000
MAX_COMMENT_LENGTH = 2000
MAX_INSIGHT_LENGTH = 8000
MAX_PALM_AREA_LENGTH = 100

UNKNOWN_AUTHOR = "Unknown"
