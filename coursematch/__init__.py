"""
coursematch: conflict-free course recommendations for students.
"""
