from interview_agent.cli import main

raise SystemExit(main())
